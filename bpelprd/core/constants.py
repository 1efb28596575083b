"""Shared constants for bpelprd.

Namespaces, activity vocabularies and defaults used across the parser,
gap detector and renderers.
"""

# =============================================================================
# Namespaces
# =============================================================================

BPEL20_NS = "http://docs.oasis-open.org/wsbpel/2.0/process/executable"
BPEL20_ABSTRACT_NS = "http://docs.oasis-open.org/wsbpel/2.0/process/abstract"
BPEL11_NS = "http://schemas.xmlsoap.org/ws/2003/03/business-process/"

BPEL_VERSIONS = {
    BPEL20_NS: "2.0",
    BPEL20_ABSTRACT_NS: "2.0",
    BPEL11_NS: "1.1",
}

# Oracle BPEL extensions (bpelx:exec, bpelx:append, workflow annotations)
BPELX_NS = "http://schemas.oracle.com/bpel/extension"

WSDL_NS = "http://schemas.xmlsoap.org/wsdl/"
XSD_NS = "http://www.w3.org/2001/XMLSchema"

PLNK_NAMESPACES = (
    "http://docs.oasis-open.org/wsbpel/2.0/plnktype",
    "http://schemas.xmlsoap.org/ws/2003/05/partner-link/",
)

# =============================================================================
# Activity vocabulary
# =============================================================================

STRUCTURED_ACTIVITIES = frozenset({
    "sequence", "flow", "if", "switch", "while", "repeatUntil",
    "forEach", "pick", "scope",
})

BASIC_ACTIVITIES = frozenset({
    "receive", "reply", "invoke", "assign", "throw", "rethrow", "exit",
    "terminate", "wait", "empty", "compensate", "compensateScope",
    "validate", "extensionActivity",
})

# Oracle extension activities that may appear directly in the flow
BPELX_ACTIVITIES = frozenset({"exec", "validate", "flowN"})

# Children of the process, scopes and activities that are not activities
NON_ACTIVITY_ELEMENTS = frozenset({
    "documentation", "extensions", "import", "partnerLinks", "partners",
    "messageExchanges", "variables", "correlationSets", "faultHandlers",
    "compensationHandler", "terminationHandler", "eventHandlers",
    "targets", "sources", "annotation", "annotations", "skipCondition",
    "correlations", "toParts", "fromParts", "condition", "links",
    "source", "target", "for", "until", "repeatEvery",
    "startCounterValue", "finalCounterValue", "completionCondition",
    "elseif", "else", "literal",
})

INBOUND_ACTIVITIES = frozenset({"receive", "onMessage", "onEvent"})

# Oracle assign operations, either direct children of <assign> (1.1) or
# wrapped in <extensionAssignOperation> (2.0)
ASSIGN_OPERATIONS = frozenset({
    "copy", "copyList", "append", "insertAfter", "insertBefore",
    "remove", "rename", "copyMerge", "augment",
})

# =============================================================================
# Extraction defaults
# =============================================================================

DEFAULT_VENDOR_XPATH_PREFIXES = [
    "ora", "orcl", "bpelx", "ids", "xp20", "oraext", "dvm", "xref", "hwf",
    "med", "ldap",
]

DEFAULT_TASK_SERVICE_SUFFIXES = ["TaskService", "HumanTask"]

# =============================================================================
# Summary schema
# =============================================================================

SUMMARY_SCHEMA_VERSION = 1

RISK_LEVELS = ("low", "medium", "high")
