# fixflow/prompts/engine_messages.py
"""
Tenant-facing messages produced by the flow engine.

Every failure path ends in one of these, never in a raw error.
"""

# ============================================================================
# SESSION START
# ============================================================================

# {minutes} is the flow's estimated time
WELCOME_PREAMBLE = """Let me help you troubleshoot this issue. This usually takes about {minutes} minutes.

"""

SAFETY_NOTE = """**Safety Note**: {warning}

"""

FLOW_NOT_FOUND = """I'm sorry, I couldn't find the right troubleshooting guide for this issue. Let me connect you with our team."""

START_ERROR = """I encountered an error starting the troubleshooting session. Let me connect you with our team."""

# ============================================================================
# SESSION LOOKUP ERRORS
# ============================================================================

SESSION_NOT_FOUND = """I couldn't find your troubleshooting session. Would you like to start over?"""

SESSION_ENDED = """This troubleshooting session has already ended. Would you like to start a new one?"""

FLOW_LOAD_ERROR = """I couldn't load the troubleshooting guide. Let me connect you with our team."""

STEP_LOST = """I lost track of where we were. Let me connect you with our team."""

SAVE_FAILED = """Sorry, I had trouble saving your answer. Could you send that again?"""

# ============================================================================
# TRANSITIONS
# ============================================================================

FRUSTRATED_REASON = "User appears frustrated with troubleshooting process"

LOW_CONFIDENCE_RETRY = """I'm not quite sure I understood. Could you try rephrasing that?"""

RETRY_PREFIX = """I'm not sure I understood that. Let me ask again:

"""

RESOLVED = """Great news! {resolution}

If you have any other issues, just let me know!"""

ESCALATION_INTRO = "I've reached the limits of what I can help with remotely. "

ESCALATION_COLLECT_INTRO = "To help the technician, could you provide:\n"

ESCALATION_COLLECT_ITEM = "{index}. {item}\n"

ESCALATION_NO_DATA = "I'll connect you with our team who can arrange a visit."

STEP_NOT_FOUND_REASON = "Step not found in flow"

UNKNOWN_ACTION_REASON = "Unknown action type"

FLOW_ENDED_REASON = "Flow ended"

# Keyed by TroubleshootingOutcome value
END_FLOW_MESSAGES = {
    "resolved_diy": "Glad we could fix it together!",
    "needs_callout": "It looks like this needs a professional visit. I'll arrange that for you.",
    "escalated_complex": "This seems more complex than expected. I'll get our team to help.",
    "escalated_safety": "For safety reasons, I'm connecting you with a professional.",
    "abandoned": "No problem. Let me know if you'd like to try again later.",
}
