"""
Software Inventory Reporting Module

This module provides the scheduled software inventory report: computers from
Active Directory are joined with SCCM inventory data and exported to Excel
workbooks, followed by a summary email.
"""

__version__ = "1.0.0"
