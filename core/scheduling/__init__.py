"""
Exam scheduling engine – validation, derivation and the exam-date status
lifecycle. Everything in this package is free of I/O.
"""
