from stamjer_calendar.events.enrollment import AutoEnrollmentRule


def test_active_members_are_enrolled_in_stam_opkomst():
    rule = AutoEnrollmentRule()
    members = [(1, True), (2, False), (3, True)]

    assert rule.initial_participants(title="Stam opkomst", is_opkomst=True, members=members) == (1, 3)


def test_rule_needs_both_title_and_opkomst_flag():
    rule = AutoEnrollmentRule()
    members = [(1, True)]

    assert rule.initial_participants(title="Stam opkomst", is_opkomst=False, members=members) == ()
    assert rule.initial_participants(title="Extra opkomst", is_opkomst=True, members=members) == ()
    assert rule.initial_participants(title="stam opkomst", is_opkomst=True, members=members) == ()


def test_configurable_title_and_no_duplicates():
    rule = AutoEnrollmentRule(title="Clubavond")

    assert rule.initial_participants(title="Clubavond", is_opkomst=True, members=[(5, True), (5, True), (6, True)]) == (5, 6)
