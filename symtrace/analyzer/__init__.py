"""Analysis core: parsing, symbol resolution, graph building and tracing."""
