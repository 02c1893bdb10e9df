"""Domain layer: models, interfaces and pure services"""
