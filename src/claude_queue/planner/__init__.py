"""Issue planner: turn free text or an interview into GitHub issues."""
