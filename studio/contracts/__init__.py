"""Wire contracts shared by the orchestrator, the LLM client and the API."""
