"""Pydantic models for the project aggregate, tool arguments and HTTP bodies."""
