"""Issue queue solver.

Items are processed one at a time on a single working branch. Status lives
in issue labels and in git history only, so a run can be stopped at any
point and the next run picks up whatever is still unlabelled.
"""
