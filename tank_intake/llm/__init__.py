"""
Language-model collaborators.

- llm_client: LiteLLM wrapper with task-based model selection and fallback
- prompt_loader: versioned prompt templates under prompts/
- field_extractor: LLM-backed field extraction returning ExtractedField candidates
"""
