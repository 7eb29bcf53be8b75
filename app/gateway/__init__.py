"""LLM provider gateway.

Provides the provider contract consumed by the analysis orchestrator:
  - ProviderName and provider-name normalization
  - BaseProvider / ProviderCompletion (text + raw vendor JSON)
  - MockProvider for demos, tests and mock mode
"""
