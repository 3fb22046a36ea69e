"""Butler: automatic context retrieval for chat assistants."""
