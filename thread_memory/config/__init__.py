from .settings import EngineCfg, ExtractionCfg, Settings, StoreCfg

__all__ = ["EngineCfg", "ExtractionCfg", "Settings", "StoreCfg"]
