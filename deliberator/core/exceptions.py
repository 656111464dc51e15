"""
Custom exceptions for the Deliberator reasoning core
"""

class DeliberatorError(Exception):
    """Base exception for the reasoning core"""
    pass

class ConfigurationError(DeliberatorError):
    """Configuration-related errors"""
    pass

class GraphError(DeliberatorError):
    """Structural errors in the state graph (cycles, dangling parents)"""
    pass

class AssignmentParseError(DeliberatorError, ValueError):
    """Raised when an assignment string cannot be parsed"""
    pass

class InferenceError(DeliberatorError):
    """Sampling and query errors"""
    pass

class PlanningError(DeliberatorError):
    """Forward planning errors"""
    pass

class LearningError(DeliberatorError):
    """Parameter learning errors"""
    pass
