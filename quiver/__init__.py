"""
QUIVER - Quality-gated Iterative Validation of Edited Resumes

An in-process orchestration library that drives a structured resume through an
eight-stage optimization workflow and gates every machine-generated rewrite
behind semantic, fabrication, and metric-preservation checks.

Architecture:
- Validation Context: Metric/term extraction, rewrite validation, bounded retry loop
- Rewriting Context: Bullet and summary rewriting through a text generator
- Pipeline Context: Session state machine, stage logic, recovery strategies
"""

__version__ = "0.1.0"
