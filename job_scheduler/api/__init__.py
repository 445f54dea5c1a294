"""
Health and status API for the job scheduler process.
"""
