from pdf_chat.session.state import (
    OPEN_PDF_PLACEHOLDER,
    WAIT_PLACEHOLDER,
    ActiveDocumentState,
    IngestionState,
    IngestionStatus,
    input_gate_for,
)


def test_broken_listener_does_not_stop_others():
    state = ActiveDocumentState()
    received = []

    def broken(_):
        raise RuntimeError("surface went away")

    state.add_listener(broken)
    state.add_listener(received.append)

    state.emit(IngestionStatus.READING)

    assert [s.status for s in received] == [IngestionStatus.READING]
    assert state.last_state.status is IngestionStatus.READING


def test_emit_tracks_progress():
    state = ActiveDocumentState()

    state.emit(IngestionStatus.EMBEDDING, progress=3, total=9)
    state.emit(IngestionStatus.COMPLETE)

    assert state.progress_snapshot() == (3, 9)


def test_busy_states_disable_input():
    for status in (
        IngestionStatus.SEARCHING_CACHE,
        IngestionStatus.LOADING_CACHE,
        IngestionStatus.READING,
        IngestionStatus.CHUNKING,
        IngestionStatus.EMBEDDING,
    ):
        gate = input_gate_for(IngestionState(status), has_document=True)
        assert gate.enabled is False
        assert gate.placeholder == WAIT_PLACEHOLDER


def test_idle_and_empty_complete_prompt_to_open_pdf():
    for state in (IngestionState(IngestionStatus.IDLE), IngestionState(IngestionStatus.COMPLETE)):
        gate = input_gate_for(state, has_document=False)
        assert gate.enabled is False
        assert gate.placeholder == OPEN_PDF_PLACEHOLDER

    assert input_gate_for(IngestionState(IngestionStatus.COMPLETE), has_document=True).enabled is True
