"""Pure analysis stages: selection, validation, scoring and trends.

Submodules are imported directly (``from commit_insight.analysis.selector
import CommitSelector``); the validator depends on the backends package,
which in turn uses ``metrics`` from here.
"""
