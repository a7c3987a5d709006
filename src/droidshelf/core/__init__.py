"""Resolution engine: device and tool wrappers, parsers, resolvers, caches."""
