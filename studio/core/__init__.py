"""Agent loop, tool dispatch, validation, fan-out and diffing."""
