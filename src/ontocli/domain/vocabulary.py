"""CNV (Command Noun Verb) Ontology Definitions.

This module defines the vocabulary used to describe command-line
interfaces as RDF graphs.
Namespace: cnv
"""

RDF_NS = "http://www.w3.org/1999/02/22-rdf-syntax-ns#"
RDFS_NS = "http://www.w3.org/2000/01/rdf-schema#"
XSD_NS = "http://www.w3.org/2001/XMLSchema#"
CNV_NS = "https://cnv.dev/ontology#"


class RDF:
    """RDF core terms."""
    TYPE = RDF_NS + "type"
    FIRST = RDF_NS + "first"
    REST = RDF_NS + "rest"
    NIL = RDF_NS + "nil"


class RDFS:
    """RDF Schema terms used for help text."""
    LABEL = RDFS_NS + "label"
    COMMENT = RDFS_NS + "comment"


class XSD:
    """XML Schema datatypes produced by literal shorthand."""
    STRING = XSD_NS + "string"
    BOOLEAN = XSD_NS + "boolean"
    INTEGER = XSD_NS + "integer"
    DECIMAL = XSD_NS + "decimal"
    DOUBLE = XSD_NS + "double"


class CNV:
    """CNV Vocabulary Constants."""
    NAMESPACE = CNV_NS
    PREFIX = "cnv"

    # --- Classes ---
    COMMAND = CNV_NS + "Command"
    NOUN = CNV_NS + "Noun"
    VERB = CNV_NS + "Verb"
    ARGUMENT = CNV_NS + "Argument"

    # --- Command properties ---
    HAS_NOUN = CNV_NS + "hasNoun"
    HAS_VERB = CNV_NS + "hasVerb"
    HAS_ARGUMENT = CNV_NS + "hasArgument"
    HANDLER = CNV_NS + "handler"
    CAPABILITY = CNV_NS + "capability"
    HELP = CNV_NS + "help"

    # --- Shared / argument properties ---
    NAME = CNV_NS + "name"
    DATATYPE = CNV_NS + "datatype"
    REQUIRED = CNV_NS + "required"
    DEFAULT = CNV_NS + "default"
    VALIDATOR = CNV_NS + "validator"
    POSITION = CNV_NS + "position"


# Predicates that may carry a single value per subject.
FUNCTIONAL_PREDICATES = frozenset({
    CNV.NAME,
    CNV.HAS_NOUN,
    CNV.HAS_VERB,
    CNV.DATATYPE,
    CNV.REQUIRED,
    CNV.DEFAULT,
    CNV.POSITION,
})

# Predicates whose objects must be declared subjects when they are resources.
REFERENCE_PREDICATES = (CNV.HAS_NOUN, CNV.HAS_VERB, CNV.HAS_ARGUMENT)

# Help text sources, highest precedence first.
HELP_PREDICATES = (CNV.HELP, RDFS.COMMENT, RDFS.LABEL)

DEFAULT_PREFIXES = {
    "rdf": RDF_NS,
    "rdfs": RDFS_NS,
    "xsd": XSD_NS,
    CNV.PREFIX: CNV_NS,
}

# Argument type tags the code generator knows how to map.
KNOWN_TYPE_TAGS = frozenset({
    "string", "str", "text",
    "integer", "int",
    "float", "decimal", "double", "number",
    "boolean", "bool",
    "path", "file",
})

XSD_TYPE_TAGS = {
    "string": "string",
    "normalizedString": "string",
    "token": "string",
    "anyURI": "string",
    "integer": "integer",
    "int": "integer",
    "long": "integer",
    "short": "integer",
    "nonNegativeInteger": "integer",
    "positiveInteger": "integer",
    "decimal": "float",
    "double": "float",
    "float": "float",
    "boolean": "boolean",
}


def normalize_type_tag(raw: str) -> str:
    """Map an xsd datatype IRI or ``xsd:`` name onto a plain type tag.

    Anything that is not an xsd datatype is returned stripped and
    lower-cased, so unknown tags stay visible to the caller.
    """
    if raw.startswith(XSD_NS):
        local = raw[len(XSD_NS):]
        return XSD_TYPE_TAGS.get(local, raw)
    if raw.startswith("xsd:"):
        local = raw[len("xsd:"):]
        return XSD_TYPE_TAGS.get(local, raw)
    return raw.strip().lower()
