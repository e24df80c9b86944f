"""
SponsorPool command line interface.
"""
