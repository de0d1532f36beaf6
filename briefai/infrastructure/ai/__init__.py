"""AI model adapters (Gemini via the OpenAI-compatible endpoint, Groq)."""
