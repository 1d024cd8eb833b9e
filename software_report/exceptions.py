class SoftwareReportError(Exception):
    """Base exception for software report errors."""
    pass

class ConfigError(SoftwareReportError):
    """Raised when the import file or a required setting is missing or invalid."""
    pass

class DirectoryQueryError(SoftwareReportError):
    """Raised when Active Directory cannot be queried."""
    pass

class InventoryQueryError(SoftwareReportError):
    """Raised when the SCCM AdminService cannot be queried."""
    pass

class RenderError(SoftwareReportError):
    """Raised when a report workbook cannot be written."""
    pass

class NotificationError(SoftwareReportError):
    """Raised when the report email cannot be sent."""
    pass
