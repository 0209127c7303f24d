"""
Linear demand model training and time-ordered cross-validation.
"""
