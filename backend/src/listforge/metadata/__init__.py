from listforge.metadata.loader import FieldConfig, ListConfig, ListMetadataLoader, to_engine_config

__all__ = ["FieldConfig", "ListConfig", "ListMetadataLoader", "to_engine_config"]
