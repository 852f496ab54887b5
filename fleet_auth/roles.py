"""
The closed set of operational roles.

Kept free of database imports so the client package can use it without
loading the server settings.
"""

import enum


class UserRole(str, enum.Enum):
    """
    The operational roles of the fleet application.

    Inherits from str so the enum value serializes naturally to JSON
    and can be stored as a simple string in the database.
    """
    FLEET_MANAGER = "fleet_manager"                    # Oversees fleet operations
    MAINTENANCE_TEAM = "maintenance_team"              # Performs vehicle maintenance
    DRIVER = "driver"                                  # Operates vehicles, logs trips
    ADMINISTRATION = "administration"                  # System and user administration
    CLIENT_COMPANY_LIAISON = "client_company_liaison"  # Coordinates with client companies
