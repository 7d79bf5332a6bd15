"""
Demo: Walk the example lead funnel along both branches and print the
analysis report.
"""

from funnel_logic.analyzer import analyze_funnel
from funnel_logic.config import configure_logging, load_settings
from funnel_logic.events import CollectingSink
from funnel_logic.examples import build_example_lead_funnel
from funnel_logic.serialization import funnel_to_yaml
from funnel_logic.session import SessionTracker


def run_path(funnel, label, submissions):
    print()
    print("=" * 70)
    print(f"PATH: {label}")
    print("=" * 70)

    sink = CollectingSink()
    tracker = SessionTracker(funnel, visitor_id="demo", event_sink=sink, answer_sink=sink)
    print(f"  Start page:  {tracker.start()}")

    for answers in submissions:
        page_id = tracker.current_page_id
        decision = tracker.submit_page(page_id, answers)
        print(f"  {page_id:<10} {answers!s:<40} -> {decision.next_page_id}")
        if decision.complete:
            break

    print(f"  Variables:   {tracker.variables.values()}")
    print(f"  Visited:     {' -> '.join(tracker.visited_page_ids)}")
    print(f"  Events:      {len(sink.events)}  Answers recorded: {len(sink.answers)}")


if __name__ == "__main__":
    configure_logging(load_settings("funnel.yaml"))
    funnel = build_example_lead_funnel()

    run_path(funnel, "business, big budget", [
        {"usage": "business"},
        {"monthly_budget": 600},
        {"team_size": "50"},
        {},
    ])
    run_path(funnel, "hobby", [
        {"usage": "hobby"},
        {"team_size": "1"},
        {"email": "me@example.com"},
        {},
    ])

    report = analyze_funnel(funnel)
    print()
    if report.warnings:
        print("⚠️  WARNINGS")
        for i, warning in enumerate(report.warnings, 1):
            print(f"  {i}. {warning}")
    else:
        print("✨ NO WARNINGS - Funnel looks clean!")

    with open("example_funnel_output.yaml", "w") as f:
        f.write(funnel_to_yaml(funnel))
    print("✅ Funnel exported to example_funnel_output.yaml")
