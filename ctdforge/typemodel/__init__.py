"""Type model: names, reflective loading and domain resolution."""

from ctdforge.typemodel.loader import (
    ConstructorInfo,
    MemberInfo,
    ParamInfo,
    ReflectiveTypeLoader,
    TypeInfo,
    TypeKind,
    type_ref_from_annotation,
)
from ctdforge.typemodel.names import (
    NULL,
    OBJECT,
    PRIMITIVE_DEFAULTS,
    PRIMITIVE_TYPES,
    TypeRef,
    load_class,
    parse_type,
    qualified_name,
)
from ctdforge.typemodel.resolver import (
    SubclassDomainResolver,
    TypeDomainResolver,
    concrete_container,
)

__all__ = [
    # Names
    "NULL",
    "OBJECT",
    "PRIMITIVE_DEFAULTS",
    "PRIMITIVE_TYPES",
    "TypeRef",
    "load_class",
    "parse_type",
    "qualified_name",
    # Loading
    "ConstructorInfo",
    "MemberInfo",
    "ParamInfo",
    "ReflectiveTypeLoader",
    "TypeInfo",
    "TypeKind",
    "type_ref_from_annotation",
    # Domains
    "SubclassDomainResolver",
    "TypeDomainResolver",
    "concrete_container",
]
