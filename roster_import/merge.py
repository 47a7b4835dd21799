"""Field-level merge diffs between incoming rows and stored players."""

from dataclasses import dataclass

from roster_import import ExistingPlayer, MergeResult, ParsedPlayerRow

MERGEABLE_FIELDS = (
    'rating',
    'dob',
    'gender',
    'state',
    'city',
    'club',
    'disability',
    'special_notes',
    'federation',
)


@dataclass
class MergePolicy:
    """How an update may change a stored player."""

    fill_blanks: bool = True            # only fill empty fields, never overwrite
    prefer_newer_rating: bool = True    # take the incoming rating when higher
    never_overwrite_dob: bool = True


def _blank(value) -> bool:
    return value is None or value == ''


def apply_merge_policy(
    incoming: ParsedPlayerRow,
    existing: ExistingPlayer,
    policy: MergePolicy,
) -> MergeResult:
    """Compute the changes an update would apply to an existing player.

    Args:
        incoming: Parsed row from the roster file.
        existing: Stored player.
        policy: Merge rules.

    Returns:
        MergeResult with the changed values and field names in field order.
    """
    result = MergeResult()

    for field_name in MERGEABLE_FIELDS:
        incoming_value = getattr(incoming, field_name)
        existing_value = getattr(existing, field_name)

        if _blank(incoming_value):
            continue

        if field_name == 'dob':
            if policy.never_overwrite_dob and existing_value:
                continue
            if existing_value != incoming_value:
                result.changes['dob'] = incoming_value
                if incoming.dob_raw:
                    result.changes['dob_raw'] = incoming.dob_raw
                result.changed_fields.append('dob')
            continue

        if field_name == 'rating':
            if existing_value is None or (policy.prefer_newer_rating and incoming_value > existing_value):
                result.changes['rating'] = incoming_value
                result.changed_fields.append('rating')
            continue

        if _blank(existing_value) or (not policy.fill_blanks and incoming_value != existing_value):
            result.changes[field_name] = incoming_value
            result.changed_fields.append(field_name)

    return result
