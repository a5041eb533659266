"""
Story Advisor context window.

Decides how much of a screenplay fits into an LLM prompt and assembles it:

  - token_estimator / budget: character allowance per model and conversation
  - context_builder: empty / full / structured / retrieval strategy selection
  - prompt_context: renders a payload into prompt text
  - snapshot: budget metrics for logging and API responses
"""
