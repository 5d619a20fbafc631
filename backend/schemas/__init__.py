"""
Pydantic schemas for API request and response validation.

Every endpoint uses explicit models. Bodies are camelCase on the wire
(see backend.schemas.common.ApiModel).
"""
