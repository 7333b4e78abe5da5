"""Rule-based pull-request descriptions from git diffs, served over MCP."""
