"""Structural tree-sitter queries, keyed by grammar id.

Each pattern captures a whole definition; the capture name selects the
chunk type. Exported declarations are matched through their inner
declaration so a definition is captured once.
"""

_JS_ARROW_FUNCTION = """
    (variable_declarator
      name: (identifier)
      value: [(arrow_function) (function_expression)]
    ) @arrow_function
"""

STRUCTURAL_QUERIES: dict[str, str] = {
    "typescript": """
    (function_declaration) @function
    (generator_function_declaration) @function
    (class_declaration) @class
    (interface_declaration) @interface
    (type_alias_declaration) @type
    (method_definition) @method
    """
    + _JS_ARROW_FUNCTION,
    "tsx": """
    (function_declaration) @function
    (class_declaration) @class
    (interface_declaration) @interface
    (type_alias_declaration) @type
    (method_definition) @method
    """
    + _JS_ARROW_FUNCTION,
    "javascript": """
    (function_declaration) @function
    (generator_function_declaration) @function
    (class_declaration) @class
    (method_definition) @method
    """
    + _JS_ARROW_FUNCTION,
    "python": """
    (function_definition) @function
    (class_definition) @class
    """,
    "go": """
    (function_declaration) @function
    (method_declaration) @method
    (type_declaration) @type
    """,
    "rust": """
    (function_item) @function
    (struct_item) @struct
    (enum_item) @enum
    (impl_item) @impl
    (trait_item) @trait
    """,
    "java": """
    (class_declaration) @class
    (interface_declaration) @interface
    (enum_declaration) @enum
    (method_declaration) @method
    (constructor_declaration) @constructor
    """,
    "cpp": """
    (function_definition) @function
    (class_specifier) @class
    (struct_specifier) @struct
    """,
    "c": """
    (function_definition) @function
    (struct_specifier) @struct
    """,
    "c_sharp": """
    (class_declaration) @class
    (interface_declaration) @interface
    (enum_declaration) @enum
    (struct_declaration) @struct
    (method_declaration) @method
    (constructor_declaration) @constructor
    """,
    "ruby": """
    (method) @function
    (class) @class
    (module) @module
    """,
    "php": """
    (function_definition) @function
    (class_declaration) @class
    (interface_declaration) @interface
    (trait_declaration) @trait
    (method_declaration) @method
    """,
}

# Capture name -> chunk type; anything else is a plain block
CAPTURE_TYPES: dict[str, str] = {
    "function": "function",
    "method": "function",
    "arrow_function": "function",
    "constructor": "function",
    "class": "class",
    "interface": "class",
    "struct": "class",
    "enum": "class",
    "trait": "class",
    "impl": "class",
    "module": "class",
}


def capture_to_chunk_type(capture_name: str) -> str:
    """Map a capture name to a chunk type."""
    return CAPTURE_TYPES.get(capture_name, "block")
