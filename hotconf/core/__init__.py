"""
Core layer: domain models, capability interfaces and the error taxonomy.
"""
