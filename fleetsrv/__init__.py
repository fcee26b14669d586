"""Document models, query DSL and templates, Elasticsearch response handling, limiting, policy coordination, subscriptions and ECS request logging for a fleet server."""

__version__ = "0.1.0"