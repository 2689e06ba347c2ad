"""Linear SVM sentiment classification of short movie reviews."""

__version__ = "0.1.0"
