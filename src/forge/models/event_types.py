"""
Event Type Constants

Centralized definitions for all event types used on Forge's event bus.
"""

# Project lifecycle events
PROJECT_INITIALIZED = "PROJECT_INITIALIZED"
"""
Dispatched when the chat orchestrator binds to a project.

Payload:
    project_id (str): Identifier of the project
    message_count (int): Number of messages rehydrated from conversation memory
    context_recovered (bool): Whether a context-recovery message was injected
"""

PROJECT_CONTEXT_CLEARED = "PROJECT_CONTEXT_CLEARED"
"""
Dispatched after all seven context documents of a project were removed.

Payload:
    project_id (str): Identifier of the project
"""

CONTEXT_RECOVERY_TRIGGERED = "CONTEXT_RECOVERY_TRIGGERED"
"""
Dispatched when a project is re-opened after a long idle gap.

Payload:
    project_id (str): Identifier of the project
    idle_seconds (float): Seconds elapsed since the last interaction
"""

# Chat events
CHAT_MESSAGE_ADDED = "CHAT_MESSAGE_ADDED"
"""
Dispatched whenever a message is appended to the in-memory chat history.

Payload:
    project_id (str): Identifier of the project
    message_id (str): Identifier of the message
    role (str): 'user', 'assistant' or 'system'
    tool (str|None): Active tool tagged on the message
"""

TOOL_SWITCHED = "TOOL_SWITCHED"
"""
Dispatched when the active tool changes.

Payload:
    project_id (str): Identifier of the project
    previous_tool (str|None): Tool that was active before the switch
    tool (str): Newly active tool
"""

CONVERSATION_COMPRESSED = "CONVERSATION_COMPRESSED"
"""
Dispatched after old conversation turns were folded into the summary.

Payload:
    project_id (str): Identifier of the project
    retained_messages (int): Messages kept verbatim
    token_count (int): Estimated token count after compression
"""

# Generation events
GENERATION_FAILED = "GENERATION_FAILED"
"""
Dispatched when the AI generation call fails.

Payload:
    message (str): Description of the failure
    error_type (str): Exception class name
"""

# Admin events
PROMPT_TEMPLATE_CHANGED = "PROMPT_TEMPLATE_CHANGED"
"""
Dispatched when a prompt template is added, updated or deleted.

Payload:
    template_id (str): Identifier of the template
    action (str): 'added', 'updated' or 'deleted'
"""
