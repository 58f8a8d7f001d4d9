from Agents.VulnerabilityAlertAgent import VulnerabilityAlertAgent

__all__ = ['VulnerabilityAlertAgent']
