import datetime

import pytest

from app.errors import ConflictError, EmptyResultError, NotFoundError, StoreError, ValidationError
from app.models import RecordFilters
from app.services.attendance import AttendanceService

D1 = datetime.date(2025, 6, 24)
D2 = datetime.date(2025, 6, 25)


async def test_mark_then_read_back(service: AttendanceService):
    await service.mark_attendance("C1", "2025-06-24", ["S1", "S2"], "T1")

    record = await service.get_attendance_by_date("C1", "2025-06-24")

    assert set(record.present_student_ids) == {"S1", "S2"}
    assert record.marked_by == "T1"
    assert record.marked_by_name == "admin"
    assert record.version == 1


async def test_second_mark_replaces_present_list(service: AttendanceService):
    await service.mark_attendance("C1", "2025-06-24", ["S1", "S2"], "T1")
    result = await service.mark_attendance("C1", "2025-06-24", ["S3"], "T2", "Teacher Two")

    record = await service.get_attendance_by_date("C1", "2025-06-24")

    assert record.present_student_ids == ["S3"]
    assert record.marked_by == "T2"
    assert record.marked_by_name == "Teacher Two"
    assert result.version == 2


async def test_mark_deduplicates_students(service: AttendanceService):
    result = await service.mark_attendance("C1", "2025-06-24", ["S2", "S1", "S2"], "T1")

    record = await service.get_attendance_by_date("C1", D1)

    assert record.present_student_ids == ["S1", "S2"]
    assert result.present_count == 2


@pytest.mark.parametrize("bad_date", ["24-06-2025", "2025/06/24", "2025-6-24", "2025-02-30", ""])
async def test_mark_rejects_malformed_dates(service: AttendanceService, bad_date):
    with pytest.raises(ValidationError):
        await service.mark_attendance("C1", bad_date, ["S1"], "T1")


@pytest.mark.parametrize("ids", [["S1", ""], ["  "], None, "S1"])
async def test_mark_rejects_bad_student_ids(service: AttendanceService, ids):
    with pytest.raises(ValidationError):
        await service.mark_attendance("C1", "2025-06-24", ids, "T1")


async def test_mark_requires_course_and_teacher(service: AttendanceService):
    with pytest.raises(ValidationError):
        await service.mark_attendance("", "2025-06-24", ["S1"], "T1")
    with pytest.raises(ValidationError):
        await service.mark_attendance("C1", "2025-06-24", ["S1"], " ")


async def test_get_missing_date_is_not_found(service: AttendanceService):
    with pytest.raises(NotFoundError):
        await service.get_attendance_by_date("C1", "2025-06-24")


async def test_mark_updates_roster_summaries(service: AttendanceService, repository):
    await service.mark_attendance("C1", D1, ["S1", "S2"], "T1")
    await service.mark_attendance("C1", D2, ["S1"], "T1")

    s1 = repository.summaries["S1"].attendance_by_course["C1"]
    s2 = repository.summaries["S2"].attendance_by_course["C1"]
    s3 = repository.summaries["S3"].attendance_by_course["C1"]

    assert (s1.dates_present, s1.total_classes, s1.attended, s1.percentage) == ([D1, D2], 2, 2, 100.0)
    assert (s2.dates_present, s2.total_classes, s2.attended, s2.percentage) == ([D1], 2, 1, 50.0)
    assert (s3.dates_present, s3.total_classes, s3.attended, s3.percentage) == ([], 2, 0, 0.0)


async def test_update_removes_date_from_dropped_students(service: AttendanceService, repository):
    await service.mark_attendance("C1", D1, ["S1", "S2"], "T1")

    await service.update_attendance("C1", D1, ["S1"], "T1")

    record = await service.get_attendance_by_date("C1", D1)
    assert record.present_student_ids == ["S1"]
    s2 = repository.summaries["S2"].attendance_by_course["C1"]
    assert s2.dates_present == []
    assert s2.attended == 0


async def test_update_reaches_students_outside_the_roster(service: AttendanceService, repository):
    await service.mark_attendance("C1", D1, ["S1", "GUEST"], "T1")
    assert repository.summaries["GUEST"].attendance_by_course["C1"].attended == 1

    await service.update_attendance("C1", D1, ["S1"], "T1")

    assert repository.summaries["GUEST"].attendance_by_course["C1"].attended == 0


async def test_update_requires_existing_record(service: AttendanceService):
    with pytest.raises(NotFoundError):
        await service.update_attendance("C1", D1, ["S1"], "T1")


async def test_expected_version_guards_against_stale_writes(service: AttendanceService):
    first = await service.mark_attendance("C1", D1, ["S1"], "T1", expected_version=0)
    assert first.version == 1

    with pytest.raises(ConflictError):
        await service.mark_attendance("C1", D1, ["S2"], "T2", expected_version=0)

    second = await service.update_attendance("C1", D1, ["S1", "S2"], "T1", expected_version=1)
    assert second.version == 2

    with pytest.raises(ConflictError):
        await service.update_attendance("C1", D1, ["S3"], "T2", expected_version=1)

    record = await service.get_attendance_by_date("C1", D1)
    assert record.present_student_ids == ["S1", "S2"]


async def test_partial_summary_failure_is_reported_and_repairable(service: AttendanceService, repository):
    repository.failing_summary_ids = {"S3"}

    with pytest.raises(StoreError) as exc_info:
        await service.mark_attendance("C1", D1, ["S1", "S3"], "T1")

    assert "S3" in exc_info.value.message
    assert (await service.get_attendance_by_date("C1", D1)).present_student_ids == ["S1", "S3"]
    assert repository.summaries["S1"].attendance_by_course["C1"].attended == 1
    assert "S3" not in repository.summaries

    repository.failing_summary_ids = set()
    summary = await service.recompute_summary("S3")

    assert summary.attendance_by_course["C1"].dates_present == [D1]
    assert repository.summaries["S3"].attendance_by_course["C1"].attended == 1


async def test_recompute_matches_write_through_cache(service: AttendanceService, repository):
    await service.mark_attendance("C1", D1, ["S1", "S2"], "T1")
    await service.mark_attendance("C1", D2, ["S2"], "T1")
    await service.update_attendance("C1", D1, ["S1"], "T1")
    cached = repository.summaries["S2"].attendance_by_course["C1"]

    rebuilt = await service.recompute_summary("S2")

    assert rebuilt.attendance_by_course["C1"] == cached
    assert rebuilt.attendance_by_course["C2"].total_classes == 0


async def test_recompute_is_idempotent(service: AttendanceService):
    await service.mark_attendance("C1", D1, ["S1"], "T1")

    first = await service.recompute_summary("S1")
    second = await service.recompute_summary("S1")

    assert first.attendance_by_course == second.attendance_by_course


async def test_summary_document_is_computed_lazily(service: AttendanceService, repository):
    await service.mark_attendance("C1", D1, ["S1"], "T1")
    repository.summaries.clear()

    summary = await service.get_summary_document("S4")

    assert summary.attendance_by_course["C1"].total_classes == 1
    assert summary.attendance_by_course["C1"].attended == 0
    assert "S4" in repository.summaries


async def test_summary_document_for_unknown_student(service: AttendanceService):
    with pytest.raises(NotFoundError):
        await service.get_summary_document("S404")


async def test_course_attendance_is_ascending_and_range_limited(service: AttendanceService):
    for day in ("2025-06-26", "2025-06-24", "2025-06-25"):
        await service.mark_attendance("C1", day, ["S1"], "T1")

    everything = await service.get_course_attendance("C1")
    ranged = await service.get_course_attendance("C1", "2025-06-25", "2025-06-26")

    assert [r.date.isoformat() for r in everything] == ["2025-06-24", "2025-06-25", "2025-06-26"]
    assert [r.date.isoformat() for r in ranged] == ["2025-06-25", "2025-06-26"]


async def test_daily_stats_use_course_roster(service: AttendanceService):
    await service.mark_attendance("C1", D1, ["S1", "S2"], "T1")

    record, stats = await service.get_daily_stats("C1", "2025-06-24")

    assert record.present_student_ids == ["S1", "S2"]
    assert stats.total_students == 5
    assert stats.absent_students == 3
    assert stats.attendance_percentage == 40.0


async def test_daily_stats_without_course_fall_back_to_present_count(service: AttendanceService):
    await service.mark_attendance("C404", D1, ["S1", "S2"], "T1")

    _, stats = await service.get_daily_stats("C404", D1)

    assert stats.total_students == 2
    assert stats.attendance_percentage == 100.0


async def test_student_summary_from_per_date_records(service: AttendanceService):
    await service.mark_attendance("C1", D1, ["S1", "S2"], "T1")
    await service.mark_attendance("C1", D2, ["S1"], "T1")
    await service.mark_attendance("C2", D1, ["S2"], "T2")

    totals = await service.get_student_attendance_summary("S2")
    june_24 = await service.get_student_attendance_summary("S2", "2025-06-24", "2025-06-24")

    assert (totals.total_classes, totals.attended, totals.percentage) == (3, 2, 66.67)
    assert len(totals.records) == 3
    assert (june_24.total_classes, june_24.attended) == (2, 2)


async def test_student_summary_for_unknown_student(service: AttendanceService):
    with pytest.raises(NotFoundError):
        await service.get_student_attendance_summary("S404")


async def test_query_student_records_paginates_filtered_records(service: AttendanceService):
    for day in range(1, 13):
        await service.mark_attendance("C1", f"2025-06-{day:02d}", ["S1"] if day % 2 else [], "T1")

    page = await service.query_student_records("S1", RecordFilters(status="present"), page=2, page_size=4)

    assert page.total_records == 6
    assert page.total_pages == 2
    assert [r.date.day for r in page.records] == [9, 11]


async def test_query_student_records_caps_page_size(service: AttendanceService):
    with pytest.raises(ValidationError):
        await service.query_student_records("S1", RecordFilters(), page=1, page_size=10_000)


async def test_student_overview_breakdowns(service: AttendanceService):
    await service.mark_attendance("C1", D1, ["S1"], "T1")
    await service.mark_attendance("C2", D2, [], "T2")

    overview = await service.get_student_overview("S1", RecordFilters())

    assert (overview.total_classes, overview.attended, overview.absent) == (2, 1, 1)
    assert [c.course_name for c in overview.courses] == ["Python Basics", "Algorithms, Part I"]
    assert overview.monthly[0].month == "2025-06"


async def test_check_in_adds_scanned_student(service: AttendanceService):
    await service.mark_attendance("C1", D1, ["S1", "S2"], "T1")

    result = await service.check_in("C1", "S3-2025-06-24", "T1")

    record = await service.get_attendance_by_date("C1", D1)
    assert record.present_student_ids == ["S1", "S2", "S3"]
    assert result.version == 2
    assert "Grace Hopper" in result.message


async def test_check_in_twice_is_a_conflict(service: AttendanceService):
    await service.check_in("C1", "S3-2025-06-24", "T1")

    with pytest.raises(ConflictError):
        await service.check_in("C1", "S3-2025-06-24", "T1")


async def test_check_in_without_date_counts_for_today(service: AttendanceService):
    result = await service.check_in("C1", "S4", "T1")

    assert result.date == datetime.datetime.utcnow().date()


async def test_check_in_unknown_student(service: AttendanceService):
    with pytest.raises(NotFoundError):
        await service.check_in("C1", "S404-2025-06-24", "T1")


async def test_rebuild_course_summaries(service: AttendanceService, repository):
    await service.mark_attendance("C1", D1, ["S1", "GUEST"], "T1")
    repository.summaries.clear()

    count = await service.rebuild_course_summaries("C1")

    assert count == 6
    assert repository.summaries["GUEST"].attendance_by_course["C1"].attended == 1
    assert repository.summaries["S5"].attendance_by_course["C1"].total_classes == 1


async def test_rebuild_unknown_course(service: AttendanceService):
    with pytest.raises(NotFoundError):
        await service.rebuild_course_summaries("C404")


async def test_export_csv_for_student(service: AttendanceService):
    await service.mark_attendance("C1", D1, ["S1"], "T1", "Grace Hopper")

    content, media_type, filename = await service.export_student_attendance("S1", RecordFilters(), "csv")

    assert media_type == "text/csv"
    assert filename == "Ada_Lovelace_S1_attendance_all_to_latest.csv"
    assert content.decode("utf-8").splitlines()[0] == "Date,Course,Status,Marked By,Timestamp"


async def test_export_inverted_range_is_empty(service: AttendanceService):
    await service.mark_attendance("C1", D1, ["S1"], "T1")
    filters = RecordFilters(start_date=datetime.date(2025, 6, 30), end_date=datetime.date(2025, 6, 1))

    with pytest.raises(EmptyResultError):
        await service.export_student_attendance("S1", filters, "xlsx")


async def test_export_rejects_unknown_format(service: AttendanceService):
    with pytest.raises(ValidationError):
        await service.export_student_attendance("S1", RecordFilters(), "pdf")


async def test_zero_page_size_is_rejected(service: AttendanceService):
    with pytest.raises(ValidationError):
        await service.query_student_records("S1", RecordFilters(), 1, 0)


async def test_missing_page_size_uses_default(service: AttendanceService):
    page = await service.query_student_records("S1", RecordFilters(), 1, None)

    assert page.page_size == 10


async def test_course_timeframe_clips_student_records(service: AttendanceService, repository):
    repository.courses["C1"].start_date = datetime.date(2025, 7, 1)
    await service.mark_attendance("C1", D1, ["S1"], "T1")
    await service.mark_attendance("C1", "2025-07-02", ["S1"], "T1")

    clipped = await service.get_student_records("S1", RecordFilters(use_course_timeframe=True))
    unclipped = await service.get_student_records("S1", RecordFilters())

    assert [(r.course_id, r.date) for r in clipped] == [("C1", datetime.date(2025, 7, 2))]
    assert len(unclipped) == 2


async def test_course_timeframe_keeps_the_narrower_requested_range(service: AttendanceService, repository):
    repository.courses["C1"].start_date = datetime.date(2025, 6, 1)
    repository.courses["C1"].end_date = datetime.date(2025, 6, 30)
    for day in ("2025-05-31", "2025-06-10", "2025-06-24", "2025-07-01"):
        await service.mark_attendance("C1", day, ["S3"], "T1")

    records = await service.get_student_records(
        "S3", RecordFilters(start_date=datetime.date(2025, 6, 15), use_course_timeframe=True)
    )

    assert [r.date.isoformat() for r in records] == ["2025-06-24"]


async def test_summary_as_of_end_date_leaves_cache_alone(service: AttendanceService, repository):
    await service.mark_attendance("C1", D1, ["S4"], "T1")
    await service.mark_attendance("C1", D2, [], "T1")

    as_of = await service.get_summary_document("S4", D1)

    assert as_of.attendance_by_course["C1"].total_classes == 1
    assert as_of.attendance_by_course["C1"].percentage == 100.0
    cached = repository.summaries["S4"].attendance_by_course["C1"]
    assert (cached.total_classes, cached.percentage) == (2, 50.0)
