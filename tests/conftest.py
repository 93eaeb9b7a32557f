"""Shared XML builders for the sanctions list tests."""

from __future__ import annotations

import pytest

BASIC_NAMESPACE = "https://sanctionslistservice.ofac.treas.gov/api/PublicationPreview/exports/XML"
ADVANCED_NAMESPACE = "https://sanctionslistservice.ofac.treas.gov/api/PublicationPreview/exports/ADVANCED_XML"


def _tag(name, value):
    return f"<{name}>{value}</{name}>" if value is not None else ""


def make_entry(uid="1", last_name=None, first_name=None, ids=(), programs=(),
               remarks=None, publish_date=None, akas=()):
    """Render one ``<sdnEntry>``. ``ids`` holds ``(idType, idNumber)`` pairs."""
    parts = [_tag("uid", uid), _tag("firstName", first_name), _tag("lastName", last_name)]
    if programs:
        parts.append("<programList>" + "".join(_tag("program", p) for p in programs) + "</programList>")
    if ids:
        rendered = "".join(
            "<id>" + _tag("idType", id_type) + _tag("idNumber", id_number) + "</id>"
            for id_type, id_number in ids
        )
        parts.append(f"<idList>{rendered}</idList>")
    if akas:
        rendered = "".join(
            "<aka>" + _tag("firstName", first) + _tag("lastName", last) + "</aka>"
            for first, last in akas
        )
        parts.append(f"<akaList>{rendered}</akaList>")
    parts.append(_tag("remarks", remarks))
    if publish_date is not None:
        parts.append(f"<publishInformation>{_tag('publishDate', publish_date)}</publishInformation>")
    return "<sdnEntry>" + "".join(parts) + "</sdnEntry>"


def make_sdn_list(*entries, namespace=None):
    xmlns = f' xmlns="{namespace}"' if namespace else ""
    return ('<?xml version="1.0" encoding="utf-8"?>'
            f"<sdnList{xmlns}><publshInformation><Publish_Date>10/17/2026</Publish_Date>"
            "<Record_Count>2</Record_Count></publshInformation>"
            + "".join(entries) + "</sdnList>")


ADVANCED_DOCUMENT = f"""<?xml version="1.0" encoding="utf-8"?>
<Sanctions xmlns="{ADVANCED_NAMESPACE}">
  <ReferenceValueSets>
    <FeatureTypeValues>
      <FeatureType ID="8">Birthdate</FeatureType>
      <FeatureType ID="344">Digital Currency Address - XBT</FeatureType>
      <FeatureType ID="345">Digital Currency Address - ETH</FeatureType>
    </FeatureTypeValues>
  </ReferenceValueSets>
  <DistinctParties>
    <DistinctParty FixedRef="1001">
      <Comment>Operates a ransomware laundering service.</Comment>
      <Profile ID="1001" PartySubTypeID="3">
        <Identity ID="5001" FixedRef="1001" Primary="true">
          <Alias FixedRef="1001" AliasTypeID="1403" Primary="true">
            <DocumentedName ID="6001">
              <DocumentedNamePart><NamePartValue>GARANTEX EUROPE OU</NamePartValue></DocumentedNamePart>
            </DocumentedName>
          </Alias>
          <Alias FixedRef="1001" AliasTypeID="1400" Primary="false">
            <DocumentedName ID="6002">
              <DocumentedNamePart><NamePartValue>GARANTEX</NamePartValue></DocumentedNamePart>
            </DocumentedName>
          </Alias>
        </Identity>
        <Feature ID="7001" FeatureTypeID="345">
          <FeatureVersion ID="7101">
            <VersionDetail DetailTypeID="1432">0x7FF9CFAD3877F21D41DA833E2F775DB0569EE3D9</VersionDetail>
          </FeatureVersion>
        </Feature>
        <Feature ID="7002" FeatureTypeID="8">
          <FeatureVersion ID="7102"><DatePeriod/></FeatureVersion>
        </Feature>
      </Profile>
    </DistinctParty>
    <DistinctParty FixedRef="1002">
      <Comment/>
      <Profile ID="1002" PartySubTypeID="4">
        <Identity ID="5002" FixedRef="1002" Primary="true">
          <Alias FixedRef="1002" AliasTypeID="1403" Primary="true">
            <DocumentedName ID="6003">
              <DocumentedNamePart><NamePartValue>Aleksandr</NamePartValue></DocumentedNamePart>
              <DocumentedNamePart><NamePartValue>VINNIK</NamePartValue></DocumentedNamePart>
            </DocumentedName>
          </Alias>
        </Identity>
        <Feature ID="7003" FeatureTypeID="344">
          <FeatureVersion ID="7103">
            <VersionDetail DetailTypeID="1432"> 1BQAPyku1ZibWGAgd8QePpW1vAKHowqLez </VersionDetail>
          </FeatureVersion>
        </Feature>
      </Profile>
    </DistinctParty>
  </DistinctParties>
  <SanctionsEntries>
    <SanctionsEntry ID="9001" ProfileID="1001" ListID="1550">
      <EntryEvent ID="9101" EntryEventTypeID="1">
        <Date CalendarTypeID="1"><Year>2022</Year><Month>4</Month><Day>5</Day></Date>
      </EntryEvent>
      <SanctionsMeasure ID="9201" SanctionsTypeID="1"><Comment>CYBER2</Comment></SanctionsMeasure>
      <SanctionsMeasure ID="9202" SanctionsTypeID="1"><Comment>RUSSIA-EO14024</Comment></SanctionsMeasure>
      <SanctionsMeasure ID="9203" SanctionsTypeID="2"/>
    </SanctionsEntry>
  </SanctionsEntries>
</Sanctions>
"""


@pytest.fixture
def advanced_document():
    return ADVANCED_DOCUMENT
