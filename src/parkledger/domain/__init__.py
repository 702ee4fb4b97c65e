"""Domain layer: records, events, errors and the pricing engine"""
