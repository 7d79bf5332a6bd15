"""
Example funnel builder.

Builds a small lead-qualification funnel exercising every rule feature:
    - a hide rule that skips the budget page for hobbyists
    - arithmetic scoring on a variable
    - a jump straight to the offer page for high scores
    - a block hidden on the contact page
"""
from funnel_logic.conditions import Operand, eq, gte
from funnel_logic.model import (
    Action,
    ActionType,
    ActionValue,
    Block,
    BlockType,
    Funnel,
    Page,
    Rule,
    Target,
    TargetType,
    ValueSource,
    VariableDeclaration,
    VariableType,
)


def build_example_lead_funnel(funnel_id: str = "lead-quiz", version: int = 1) -> Funnel:
    pages = (
        Page(
            id="intro",
            name="Intro",
            blocks=(
                Block("intro_heading", BlockType.HEADING, {"text": "Find your plan"}),
                Block("usage", BlockType.MULTIPLE_CHOICE, {
                    "name": "How will you use it?",
                    "options": [{"id": "hobby", "label": "Hobby"}, {"id": "business", "label": "Business"}],
                }, {"required": True}),
            ),
        ),
        Page(
            id="budget",
            name="Budget",
            blocks=(
                Block("monthly_budget", BlockType.SLIDER, {"name": "Monthly budget", "minValue": 0, "maxValue": 1000},
                      {"min": 0, "max": 1000}),
            ),
        ),
        Page(
            id="team",
            name="Team size",
            blocks=(
                Block("team_size", BlockType.DROPDOWN, {
                    "name": "Team size",
                    "options": [{"id": "1", "label": "Just me"}, {"id": "10", "label": "2-10"},
                                {"id": "50", "label": "11-50"}],
                }),
            ),
        ),
        Page(
            id="contact",
            name="Contact",
            blocks=(
                Block("email", BlockType.TEXT_INPUT, {"name": "Email"}, {"required": True, "email": True}),
                Block("company", BlockType.TEXT_INPUT, {"name": "Company"}, {"max_length": 80}),
            ),
        ),
        Page(
            id="offer",
            name="Offer",
            blocks=(Block("offer_text", BlockType.PARAGRAPH, {"text": "Your plan: {{var:plan}}"}),),
        ),
    )

    score = Target(TargetType.VARIABLE, "score")
    rules = (
        Rule(
            page_id="intro",
            condition=eq(Operand.block("usage"), Operand.constant("hobby")),
            actions=(
                Action(ActionType.HIDE, Target(TargetType.PAGE, "budget")),
                Action(ActionType.HIDE, Target(TargetType.BLOCK, "company")),
                Action(ActionType.SET, Target(TargetType.VARIABLE, "plan"),
                       ActionValue(ValueSource.CONSTANT, "starter")),
            ),
        ),
        Rule(
            page_id="intro",
            condition=eq(Operand.block("usage"), Operand.constant("business")),
            actions=(
                Action(ActionType.ADD, score, ActionValue(ValueSource.CONSTANT, 10)),
                Action(ActionType.SET, Target(TargetType.VARIABLE, "plan"),
                       ActionValue(ValueSource.CONSTANT, "team")),
            ),
        ),
        Rule(
            page_id="budget",
            condition=gte(Operand.block("monthly_budget"), Operand.constant(500)),
            actions=(Action(ActionType.ADD, score, ActionValue(ValueSource.CONSTANT, 20)),),
        ),
        Rule(
            page_id="team",
            actions=(
                Action(ActionType.ADD, score, ActionValue(ValueSource.CONSTANT, 5),
                       condition=gte(Operand.block("team_size"), Operand.constant(10))),
                Action(ActionType.SET, Target(TargetType.VARIABLE, "plan"),
                       ActionValue(ValueSource.CONSTANT, "enterprise"),
                       condition=gte(Operand.variable("score"), Operand.constant(30))),
                Action(ActionType.JUMP, Target(TargetType.PAGE, "offer"),
                       condition=gte(Operand.variable("score"), Operand.constant(30))),
            ),
        ),
    )

    variables = (
        VariableDeclaration("score", VariableType.NUMBER, 0),
        VariableDeclaration("plan", VariableType.STRING, ""),
    )

    return Funnel(id=funnel_id, version=version, pages=pages, rules=rules, variables=variables)
