"""Text generation: client, pricing and prompts."""
