from conftest import make_commits, make_unit
from models.schemas.signals import CommitRecord, DependencyRecord, FileEntry
from services.signal_bundle import MAX_COMMIT_MESSAGE_CHARS, build_signal_bundle, top_extensions


def test_bundle_caps_every_signal_list():
    unit = make_unit("u1", "api")
    deps = [DependencyRecord(manager="npm", name=f"pkg-{i}") for i in range(60)]
    tree = [FileEntry(path=f"src/f{i}.ext{i % 30}") for i in range(300)]
    bundle = build_signal_bundle(unit, make_commits(80), tree, deps)
    assert len(bundle.commits) == 30
    assert len(bundle.dependencies) == 40
    assert len(bundle.extension_histogram) == 20
    assert bundle.unit == unit


def test_bundle_respects_custom_caps():
    bundle = build_signal_bundle(
        make_unit("u1"), make_commits(10), [], [], commit_cap=3, dependency_cap=0, extension_cap=1
    )
    assert len(bundle.commits) == 3
    assert bundle.dependencies == []
    assert bundle.extension_histogram == {}


def test_commit_messages_are_squashed_and_truncated():
    commits = [
        CommitRecord(sha="a" * 40, message="fix:\n\n  handle   empty\tpayloads"),
        CommitRecord(sha="b" * 40, message="x" * 1000),
    ]
    bundle = build_signal_bundle(make_unit("u1"), commits, [], [])
    assert bundle.commits[0].message == "fix: handle empty payloads"
    assert len(bundle.commits[1].message) == MAX_COMMIT_MESSAGE_CHARS
    # inputs are left untouched
    assert commits[1].message == "x" * 1000


def test_top_extensions_orders_by_count_then_name():
    hist = {"ts": 5, "py": 9, "md": 5, "css": 1}
    assert list(top_extensions(hist, 3)) == ["py", "md", "ts"]
