import uuid

import pytest
from fastapi import HTTPException

from app.models.document import (
    Document,
    DocumentStatus,
    Field,
    FieldType,
    Recipient,
    RecipientStatus,
)
from tests.helpers import session_token


def _field(db_session, field_id):
    db_session.expire_all()
    return db_session.get(Field, field_id)


def test_owner_write_stores_value(db_session, workflow, make_document):
    document = make_document(fields_for=(0,))
    field = document.fields[0]

    affected = workflow.fields.set_field_value(
        db_session, field.id, field.recipient_id, "data:image/png;base64,AAAA"
    )
    db_session.commit()

    assert affected == 1
    stored = _field(db_session, field.id)
    assert stored.value == "data:image/png;base64,AAAA"
    assert stored.signed_at is not None


def test_write_to_another_recipients_field_changes_nothing(db_session, workflow, make_document):
    document = make_document(fields_for=(0, 1))
    first, second = document.recipients
    foreign = next(item for item in document.fields if item.recipient_id == second.id)

    affected = workflow.fields.set_field_value(db_session, foreign.id, first.id, "forged")
    db_session.commit()

    assert affected == 0
    stored = _field(db_session, foreign.id)
    assert stored.value is None
    assert stored.signed_at is None


def test_malformed_or_unknown_field_id_is_ignored(db_session, workflow, make_document):
    document = make_document(fields_for=(0,))
    recipient = document.recipients[0]

    assert workflow.fields.set_field_value(db_session, "not-a-uuid", recipient.id, "x") == 0
    assert workflow.fields.set_field_value(db_session, uuid.uuid4(), recipient.id, "x") == 0


def test_fields_for_returns_only_the_recipients_fields(db_session, workflow, make_document):
    document = make_document(fields_for=(0, 1, 0))
    first = document.recipients[0]

    fields = workflow.fields.fields_for(db_session, first.id)

    assert len(fields) == 2
    assert {item.recipient_id for item in fields} == {first.id}


def test_missing_required_fields_treats_blank_values_as_missing(
    db_session, workflow, make_document
):
    document = make_document(fields_for=(0, 0, 0))
    recipient = document.recipients[0]
    a, b, c = workflow.fields.fields_for(db_session, recipient.id)

    missing = workflow.fields.missing_required_fields(
        db_session, recipient.id, {a.id: "Jane", str(b.id): "   "}
    )

    assert {item.id for item in missing} == {b.id, c.id}


def test_optional_fields_are_never_missing(db_session, workflow, make_document):
    document = make_document(fields_for=(0, 0))
    recipient = document.recipients[0]
    required, optional = workflow.fields.fields_for(db_session, recipient.id)
    optional.required = False
    db_session.commit()

    missing = workflow.fields.missing_required_fields(
        db_session, recipient.id, {str(required.id): True}
    )

    assert missing == []


def test_false_does_not_answer_a_required_signature(db_session, workflow, make_document):
    document = make_document(fields_for=(0,))
    recipient = document.recipients[0]
    field = document.fields[0]

    for value in (False, 0, ""):
        missing = workflow.fields.missing_required_fields(
            db_session, recipient.id, {field.id: value}
        )
        assert [item.id for item in missing] == [field.id]


def test_required_checkbox_must_be_ticked(db_session, workflow, make_document):
    document = make_document(fields_for=(0,))
    recipient = document.recipients[0]
    field = document.fields[0]
    field.type = FieldType.checkbox
    db_session.commit()

    unticked = workflow.fields.missing_required_fields(db_session, recipient.id, {field.id: False})
    as_text = workflow.fields.missing_required_fields(db_session, recipient.id, {field.id: "true"})
    ticked = workflow.fields.missing_required_fields(db_session, recipient.id, {field.id: True})

    assert [item.id for item in unticked] == [field.id]
    assert [item.id for item in as_text] == [field.id]
    assert ticked == []


def test_submit_with_false_signature_is_rejected(db_session, workflow, make_document):
    document = make_document(roles=("signer",), fields_for=(0,), send=True)
    recipient = document.recipients[0]
    field = document.fields[0]

    token = session_token(db_session, recipient.id)

    with pytest.raises(HTTPException) as exc:
        workflow.signing.submit(db_session, token, {field.id: False})

    assert exc.value.status_code == 400
    assert exc.value.detail["fields"] == [str(field.id)]
    db_session.expire_all()
    assert db_session.get(Recipient, recipient.id).status == RecipientStatus.sent
    assert db_session.get(Document, document.id).status == DocumentStatus.pending
