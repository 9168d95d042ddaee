"""Discourse Connector models."""

from discourse_connector.models.app_setting import AppSetting
from discourse_connector.models.connector_user import ConnectorUser
from discourse_connector.models.host_user import HostUser
from discourse_connector.models.set_mapping import SetMapping

__all__ = ["AppSetting", "ConnectorUser", "HostUser", "SetMapping"]
