"""Extract sanctioned digital currency addresses from the OFAC SDN XML files.

The same extraction runs against both published layouts of the list: the
basic ``sdn.xml`` and ``sdn_advanced.xml``. A :class:`SchemaConfig` maps each
canonical field to where that layout keeps it, so the pipeline itself never
branches on the schema.
"""

from dataclasses import dataclass, field as dataclass_field
from typing import Dict, List, Optional, Tuple

# SECURITY: Use defusedxml to prevent XXE and Billion Laughs attacks
try:
    import defusedxml.ElementTree as ET
    from defusedxml import DefusedXmlException
except ImportError:
    raise ImportError("Security critical dependency missing. Please run: pip install defusedxml")

# Addresses shorter than this are parser artifacts, not wallet addresses.
MIN_ADDRESS_LENGTH = 10

STRICT_KEYWORDS = ("digital currency",)
LOOSE_KEYWORDS = ("digital currency", "crypto", "virtual currency", "wallet")

UNKNOWN_ENTITY = "Unknown Entity"
UNKNOWN_PROGRAM = "Not specified"
UNKNOWN_DATE = "Date not specified"
DEFAULT_REASON = "Listed on OFAC SDN List"


class SanctionsListError(Exception):
    """Base class for errors raised while producing an address snapshot."""


class FetchError(SanctionsListError):
    """The sanctions document could not be retrieved."""


class DocumentStructureError(SanctionsListError):
    """The document is not XML or is missing its entity list."""


class MalformedEntryError(SanctionsListError):
    """A single entity could not be read."""

    def __init__(self, message, uid=None):
        super().__init__(message)
        self.uid = uid


@dataclass(frozen=True)
class Field:
    """Location of one value inside an entity element.

    ``path`` is an ElementTree path relative to the entity element, or to the
    entity's linked sanctions record when ``linked`` is set. ``attribute``
    reads that attribute instead of the element text, ``reference`` resolves
    the raw value through one of the document's reference tables, and
    ``join`` collapses all matches into one string.
    """

    path: str
    attribute: Optional[str] = None
    reference: Optional[str] = None
    join: Optional[str] = None
    linked: bool = False


@dataclass(frozen=True)
class SchemaConfig:
    name: str
    source: str
    url: str
    root_tag: str
    entry_container: str
    entry_list: str
    uid: Field
    first_name: Optional[Field]
    last_name: Optional[Field]
    alias_list: Optional[str]
    alias_name: Tuple[Field, ...]
    identifier_list: str
    identifier_type: Field
    identifier_values: Tuple[Field, ...]
    programs: Field
    remarks: Optional[Field]
    published_date: Optional[Field]
    references: Dict[str, str] = dataclass_field(default_factory=dict)
    linked_list: Optional[str] = None
    linked_key: Optional[str] = None


BASIC_SCHEMA = SchemaConfig(
    name="basic",
    source="OFAC SDN List",
    url="https://www.treasury.gov/ofac/downloads/sdn.xml",
    root_tag="sdnList",
    entry_container=".",
    entry_list="sdnEntry",
    uid=Field("uid"),
    first_name=Field("firstName"),
    last_name=Field("lastName"),
    alias_list="akaList/aka",
    alias_name=(Field("firstName"), Field("lastName")),
    identifier_list="idList/id",
    identifier_type=Field("idType"),
    # the number field, then the id element's own text
    identifier_values=(Field("idNumber"), Field(".")),
    programs=Field("programList/program"),
    remarks=Field("remarks"),
    published_date=Field("publishInformation/publishDate"),
)

ADVANCED_SCHEMA = SchemaConfig(
    name="advanced",
    source="OFAC SDN Advanced List",
    url="https://www.treasury.gov/ofac/downloads/sanctions/1.0/sdn_advanced.xml",
    root_tag="Sanctions",
    entry_container="DistinctParties",
    entry_list="DistinctParties/DistinctParty",
    uid=Field(".", attribute="FixedRef"),
    first_name=None,
    last_name=Field(
        "Profile/Identity/Alias[@Primary='true']/DocumentedName/DocumentedNamePart/NamePartValue",
        join=" "),
    alias_list="Profile/Identity/Alias[@Primary='false']",
    alias_name=(Field("DocumentedName/DocumentedNamePart/NamePartValue", join=" "),),
    identifier_list="Profile/Feature",
    identifier_type=Field(".", attribute="FeatureTypeID", reference="FeatureType"),
    identifier_values=(Field("FeatureVersion/VersionDetail"), Field("FeatureVersion/Comment")),
    programs=Field("SanctionsMeasure/Comment", linked=True),
    remarks=Field("Comment"),
    published_date=Field("EntryEvent[1]/Date/*", join="-", linked=True),
    references={"FeatureType": "ReferenceValueSets/FeatureTypeValues/FeatureType"},
    linked_list="SanctionsEntries/SanctionsEntry",
    linked_key="ProfileID",
)

SCHEMAS = {schema.name: schema for schema in (BASIC_SCHEMA, ADVANCED_SCHEMA)}


@dataclass(frozen=True)
class Identifier:
    type_label: Optional[str]
    value: Optional[str]


@dataclass
class SanctionEntry:
    uid: str
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    aliases: List[str] = dataclass_field(default_factory=list)
    identifiers: List[Identifier] = dataclass_field(default_factory=list)
    programs: List[str] = dataclass_field(default_factory=list)
    remarks: Optional[str] = None
    published_date: Optional[str] = None

    def __post_init__(self):
        # A lone program label is a one-element program list
        if self.programs is None:
            self.programs = []
        elif isinstance(self.programs, str):
            self.programs = [self.programs]
        else:
            self.programs = list(self.programs)

    @property
    def names(self):
        return [display_name(self)] + self.aliases


@dataclass
class AddressRecord:
    entity: str
    program: str
    date: str
    reason: str
    type: str
    uid: Optional[str] = None

    def to_dict(self):
        return {
            "entity": self.entity,
            "program": self.program,
            "date": self.date,
            "reason": self.reason,
            "type": self.type,
        }


@dataclass
class Diagnostic:
    """One recovered problem. ``level`` is ``"error"`` or ``"skip"``."""

    level: str
    message: str
    uid: Optional[str] = None
    index: Optional[int] = None


@dataclass
class ExtractionStats:
    entities_processed: int = 0
    entities_failed: int = 0
    candidates_matched: int = 0
    candidates_rejected: int = 0
    addresses_accepted: int = 0
    unique_addresses: int = 0
    id_types: List[str] = dataclass_field(default_factory=list)


@dataclass
class ExtractionResult:
    addresses: Dict[str, List[AddressRecord]] = dataclass_field(default_factory=dict)
    stats: ExtractionStats = dataclass_field(default_factory=ExtractionStats)
    diagnostics: List[Diagnostic] = dataclass_field(default_factory=list)

    def to_mapping(self):
        """Return the JSON-ready address mapping.

        An address listed by a single entity keeps the flat record fields; an
        address shared by several entities becomes ``{"entries": [...]}`` in
        document order.
        """
        mapping = {}
        for address, records in self.addresses.items():
            if len(records) == 1:
                mapping[address] = records[0].to_dict()
            else:
                mapping[address] = {"entries": [record.to_dict() for record in records]}
        return mapping


@dataclass
class ParsedDocument:
    root: object
    schema: SchemaConfig
    references: Dict[str, Dict[str, str]]
    linked: Dict[str, object]


def strip_namespaces(root):
    """Drop the ``{namespace}`` prefix from every tag below ``root``.

    OFAC has moved the namespace URL between revisions of both files, the
    schema paths are written without one.
    """
    for element in root.iter():
        if isinstance(element.tag, str) and "}" in element.tag:
            element.tag = element.tag.split("}", 1)[1]
    return root


def parse_document(text, schema=BASIC_SCHEMA):
    """Parse a sanctions document and index its reference tables.

    Args:
        text: the XML document as ``str`` or ``bytes``
        schema: the :class:`SchemaConfig` describing the layout

    Returns:
        ParsedDocument

    Raises:
        DocumentStructureError: the text is not well formed XML, or the root
            element or entity list the schema expects is missing
    """
    try:
        root = ET.fromstring(text)
    except (ET.ParseError, DefusedXmlException) as e:
        raise DocumentStructureError(f"Failed to parse XML: {e}") from e

    strip_namespaces(root)

    if root.tag != schema.root_tag:
        raise DocumentStructureError(
            f"Expected root element <{schema.root_tag}> for the {schema.name} schema, got <{root.tag}>")
    if root.find(schema.entry_container) is None:
        raise DocumentStructureError(f"Missing entity list <{schema.entry_container}>")

    references = {}
    for table, path in schema.references.items():
        references[table] = {
            element.get("ID"): (element.text or "").strip()
            for element in root.findall(path)
        }

    linked = {}
    if schema.linked_list:
        for element in root.findall(schema.linked_list):
            key = element.get(schema.linked_key)
            if key is not None:
                linked.setdefault(key, element)

    return ParsedDocument(root=root, schema=schema, references=references, linked=linked)


def iter_entry_elements(document):
    """Return the entity elements as a list, however many there are."""
    return list(document.root.findall(document.schema.entry_list))


def read_values(element, field, document, linked=None):
    """Return every non-empty value ``field`` selects, in document order."""
    scope = linked if field.linked else element
    if scope is None:
        return []

    values = []
    for match in scope.findall(field.path):
        raw = match.get(field.attribute) if field.attribute else match.text
        if raw is None:
            continue
        raw = raw.strip()
        if not raw:
            continue
        if field.reference:
            table = document.references.get(field.reference, {})
            if raw not in table:
                raise MalformedEntryError(f"Unknown {field.reference} reference {raw!r}")
            raw = table[raw]
        values.append(raw)

    if field.join is not None and values:
        return [field.join.join(values)]
    return values


def read_value(element, field, document, linked=None):
    if field is None:
        return None
    values = read_values(element, field, document, linked)
    return values[0] if values else None


def read_entry(element, document):
    """Build a :class:`SanctionEntry` from one entity element.

    Raises:
        MalformedEntryError: the entity has no uid, or references a type the
            document does not define
    """
    schema = document.schema
    uid = read_value(element, schema.uid, document)
    if uid is None:
        raise MalformedEntryError(f"<{element.tag}> has no uid")

    linked = document.linked.get(uid)
    try:
        aliases = []
        if schema.alias_list:
            for alias in element.findall(schema.alias_list):
                parts = [read_value(alias, part, document) for part in schema.alias_name]
                name = " ".join(part for part in parts if part)
                if name:
                    aliases.append(name)

        identifiers = []
        for id_element in element.findall(schema.identifier_list):
            value = None
            for value_field in schema.identifier_values:
                value = read_value(id_element, value_field, document)
                if value:
                    break
            identifiers.append(Identifier(
                type_label=read_value(id_element, schema.identifier_type, document),
                value=value,
            ))

        return SanctionEntry(
            uid=uid,
            first_name=read_value(element, schema.first_name, document, linked),
            last_name=read_value(element, schema.last_name, document, linked),
            aliases=aliases,
            identifiers=identifiers,
            programs=read_values(element, schema.programs, document, linked),
            remarks=read_value(element, schema.remarks, document, linked),
            published_date=read_value(element, schema.published_date, document, linked),
        )
    except MalformedEntryError as e:
        e.uid = uid
        raise


def display_name(entry):
    """Name an entity "LAST, FIRST", falling back to whichever part exists."""
    last = (entry.last_name or "").strip()
    first = (entry.first_name or "").strip()
    if last and first:
        return f"{last}, {first}"
    return last or first or UNKNOWN_ENTITY


def is_crypto_identifier(type_label, keywords=STRICT_KEYWORDS):
    if not type_label:
        return False
    label = type_label.lower()
    return any(keyword in label for keyword in keywords)


def normalize_address(value):
    return (value or "").strip().lower()


def build_record(entry, identifier):
    return AddressRecord(
        entity=display_name(entry),
        program=", ".join(entry.programs) if entry.programs else UNKNOWN_PROGRAM,
        date=entry.published_date or UNKNOWN_DATE,
        reason=entry.remarks or DEFAULT_REASON,
        type=identifier.type_label,
        uid=entry.uid,
    )


def collect_entry(entry, index, result, keywords=STRICT_KEYWORDS):
    """Add every digital currency address of ``entry`` to ``result``."""
    stats = result.stats
    id_types = set(stats.id_types)

    for identifier in entry.identifiers:
        if identifier.type_label:
            id_types.add(identifier.type_label)
        if not is_crypto_identifier(identifier.type_label, keywords):
            continue

        stats.candidates_matched += 1
        address = normalize_address(identifier.value)
        if len(address) < MIN_ADDRESS_LENGTH:
            stats.candidates_rejected += 1
            result.diagnostics.append(Diagnostic(
                "skip", f"Rejected {identifier.type_label} value {address!r}: shorter than "
                f"{MIN_ADDRESS_LENGTH} characters", uid=entry.uid, index=index))
            continue

        records = result.addresses.setdefault(address, [])
        if any(record.uid == entry.uid for record in records):
            result.diagnostics.append(Diagnostic(
                "skip", f"Duplicate address {address} on the same entity",
                uid=entry.uid, index=index))
            continue
        stats.addresses_accepted += 1
        records.append(build_record(entry, identifier))

    stats.id_types = sorted(id_types)


def extract_addresses(text, schema=BASIC_SCHEMA, keywords=STRICT_KEYWORDS):
    """Extract the digital currency addresses listed in a sanctions document.

    Entities that cannot be read are skipped and reported in the result's
    diagnostics. An address listed by more than one entity keeps one record
    per entity.

    Args:
        text: the XML document as ``str`` or ``bytes``
        schema: layout of the document, see ``SCHEMAS``
        keywords: identifier type substrings that mark a wallet address,
            ``STRICT_KEYWORDS`` or ``LOOSE_KEYWORDS``

    Returns:
        ExtractionResult with addresses ordered by address

    Raises:
        DocumentStructureError: the document cannot be used at all
    """
    document = parse_document(text, schema)
    result = ExtractionResult()

    for index, element in enumerate(iter_entry_elements(document)):
        result.stats.entities_processed += 1
        try:
            entry = read_entry(element, document)
            collect_entry(entry, index, result, keywords)
        except MalformedEntryError as e:
            result.stats.entities_failed += 1
            result.diagnostics.append(Diagnostic("error", str(e), uid=e.uid, index=index))
        except (AttributeError, TypeError, ValueError) as e:
            result.stats.entities_failed += 1
            result.diagnostics.append(Diagnostic(
                "error", f"Unexpected entity shape: {e}", index=index))

    result.addresses = dict(sorted(result.addresses.items()))
    result.stats.unique_addresses = len(result.addresses)
    return result
