# casework

Building blocks for an event-sourced case handling system, plus a checker
that keeps a vertical-sliced Go codebase within its architectural
boundaries. The package has no dependencies beyond the standard library.

## What is inside

### `casework.subject`

Subjects are the objects under management, for example a dwelling
(`SubjectKind.DWELLING`).

- `casework.subject.domain` holds the `Subject` aggregate. Its
  `register_subject` command takes a `RegisterSubjectCmd`, checks it (a
  subject can be registered once, its kind must be valid, its name must not
  be blank once trimmed; name and detail are stored trimmed) and returns the
  `DomainEvent` values to persist, stamped with the time of the injected
  `Clock`. `apply` replays a stored event onto the aggregate and raises the
  version. `encode_event` and `deserialize_event` turn event payloads into
  JSON and back; an unknown event type or broken JSON raises
  `EventDecodeError`. `valid_subject_kinds` and `is_valid_subject_kind`
  describe the known kinds. `Repository` is the protocol a read model
  implements.
- `casework.subject.facade` offers `SubjectFacade`: `create_subject` runs the
  registration, appends the events to an event store under the stream
  `subject-<id>`, publishes a `SubjectRegisteredEvent` on the event bus and
  returns the new ID. Read queries (`get_subject_info`,
  `list_subjects_by_org`, `list_subjects_by_org_and_kind`,
  `get_subjects_by_ids`) go to the read model and return `SubjectInfoDTO`
  values. An unknown subject raises `SubjectNotFoundError`.
- `casework.subject.projection` has `register_projection_subscribers`,
  which subscribes a read-model writer to `SubjectRegisteredEvent` on the
  bus. A failing writer surfaces as `ProjectionError`.

### `casework.workitem`

Work items track one case from the first inbound message to the confirmed
reply.

- `casework.workitem.domain` holds the `WorkItem` aggregate and its
  commands: `intake_inbound_message`, `record_assistant_action`,
  `confirm_outbound_message`, and timeline notes through `add_note`,
  `edit_note` and `delete_note` (deletion is a soft delete). The status
  moves from `new` to `in_progress` on intake, to `pending_confirmation`
  once a draft is pending, and to `resolved` once the reply is confirmed.
  Each rule violation raises its own subclass of `WorkItemError`, such as
  `NoPendingDraftError`, `AlreadyConfirmedError` or
  `InvalidEntryIndexError`. `encode_event` and `deserialize_event` handle
  the JSON form of every event type.
- `casework.workitem.facade` offers `WorkItemFacade`, which replays an
  aggregate from its `workitem-<id>` stream, runs a command, appends the new
  events with the expected stream version and publishes them as facade
  events such as `WorkItemCreatedEvent` or `NoteAddedToTimelineEntryEvent`.
  It re-exports `Status`, `ActionKind`, `DraftStatus` and `PartyRole`.
- `casework.workitem.testharness` builds ready-made DTOs for the common
  path: `make_intake_dto`, `make_lookup_dto`, `make_draft_dto` and
  `make_confirm_dto`.

Every command reads the time from an injected `Clock` (any object with a
`now()` method), so a fixed or stepping clock makes event timestamps fully
predictable in tests.

### Collaborators you supply

The facades and the projection work against small protocols rather than
concrete infrastructure:

- an event store with `append(stream_id, expected_version, events)`, which
  returns stored records carrying `event_type` and a JSON `payload`, and (for
  work items) `load_stream(stream_id)`; `encode_event` gives the JSON to
  store;
- an event bus with `publish(event)` and, for the projection,
  `subscribe(event_type, handler)`;
- for subjects, a read model implementing `Repository` and a writer with
  `upsert_projection(...)`.

### `casework.archtest`

A boundary checker for a Go repository laid out as verticals under
`internal/`. `default_policy()` returns a `Policy` that names the verticals,
shared packages, allowed subpackages and event-sourced verticals; import
paths are matched against its `module_path`. The checks in
`casework.archtest.checks` return lists of violation messages for:

- imports between verticals that do not go through a `facade` package;
- domain packages that import infrastructure;
- exported interfaces in facade packages;
- unknown subpackages inside a vertical and undeclared directories under
  `internal/`;
- `UPDATE`/`DELETE` SQL in `internal/platform/eventstore`;
- references to `time.Now` in business code, under any import alias;
- event-sourced verticals whose facade does not import the event store or
  whose domain does not declare `DeserializeEvent`;
- existence-check methods (`Exists…`, `Has…`, `Check…`, `IsDuplicate…`) on
  facade interfaces of event-sourced verticals.

`casework.archtest.goscan` is the small Go source reader the checks use.
`casework.archtest.cli.run_checks` runs them all and returns the violations
sorted.

## Running the checker

Install the package, then run it from the root of the repository to check,
or point it there with `--root`:

```
pip install .
casework-archtest
casework-archtest --root path/to/repo
```

Violations are printed sorted, one per line, and the command exits with
status 1 when any are found, or when a check cannot run (for example when
there is no `internal/` directory). Set `ARCHTEST_REPORT_ONLY=1` to print
violations without failing.

## What it does not do

- There is no event store, event bus or database-backed read model in the
  package; you provide them through the protocols above.
- The checker reads Go files syntactically. It does not type-check
  packages, so it does not judge which symbols of another vertical's facade
  are used; it only checks which packages are imported.

## Running the tests

```
pip install ".[test]"
pytest
```