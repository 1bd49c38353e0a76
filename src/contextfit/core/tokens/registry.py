"""Default model context limits registry.

Pre-configured context window sizes for common model families, keyed by a
lowercase model id fragment.
"""

# Conservative fallback for unknown models
DEFAULT_CONTEXT_LIMIT_KEY = "default"

DEFAULT_CONTEXT_LIMITS: dict[str, int] = {
    # OpenAI
    "gpt-4": 8_192,
    "gpt-4-32k": 32_768,
    "gpt-4-turbo": 128_000,
    "gpt-4-turbo-preview": 128_000,
    "gpt-4o": 128_000,
    "gpt-4o-mini": 128_000,
    "gpt-3.5-turbo": 16_385,
    "gpt-3.5-turbo-16k": 16_385,
    "o1": 200_000,
    "o1-mini": 128_000,
    "o1-preview": 128_000,
    # Anthropic
    "claude-3-opus": 200_000,
    "claude-3-sonnet": 200_000,
    "claude-3-haiku": 200_000,
    "claude-3.5-sonnet": 200_000,
    "claude-3.5-haiku": 200_000,
    "claude-2": 100_000,
    "claude-instant": 100_000,
    # Google
    "gemini-pro": 32_768,
    "gemini-1.5-pro": 1_000_000,
    "gemini-1.5-flash": 1_000_000,
    # Meta Llama
    "llama-3": 8_192,
    "llama-3.1": 128_000,
    "llama-3.2": 128_000,
    "llama-2": 4_096,
    # Mistral
    "mistral": 32_768,
    "mistral-7b": 32_768,
    "mistral-large": 128_000,
    "mixtral": 32_768,
    # Cohere
    "command": 4_096,
    "command-r": 128_000,
    "command-r-plus": 128_000,
    # Local/other common families
    "qwen": 32_768,
    "phi": 4_096,
    "deepseek": 32_768,
    DEFAULT_CONTEXT_LIMIT_KEY: 8_192,
}

# Models above this window are treated as large-context
LARGE_CONTEXT_THRESHOLD = 32_768
