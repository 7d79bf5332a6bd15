"""
Funnel Logic Engine

Evaluates branching rules and variable mutations against the answers a
respondent submits, and decides navigation order, page/block visibility
and variable writes as the respondent moves through a funnel.

ARCHITECTURAL GUARANTEE:
------------------------
This package contains ZERO knowledge of:
    - Rendering or page layout
    - Storage of definitions or submissions
    - Transport or request handling

Evaluation is synchronous and pure. The only mutable state is the
session snapshot held by SessionTracker.
"""

__version__ = "0.1.0"
