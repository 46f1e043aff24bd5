from pathlib import Path

from core import settings


def test_linux_data_dir_with_xdg():
    env = {"XDG_DATA_HOME": "/tmp/xdg"}
    result = settings.get_default_data_dir(
        settings.APP_NAME,
        platform="linux",
        env=env,
        home=Path("/home/test"),
    )
    assert result == Path("/tmp/xdg") / settings.APP_NAME


def test_linux_data_dir_default_home():
    result = settings.get_default_data_dir(
        settings.APP_NAME,
        platform="linux",
        env={},
        home=Path("/home/test"),
    )
    assert result == Path("/home/test/.local/share") / settings.APP_NAME


def test_macos_data_dir():
    result = settings.get_default_data_dir(
        settings.APP_NAME,
        platform="darwin",
        env={},
        home=Path("/Users/test"),
    )
    expected = Path("/Users/test/Library/Application Support") / settings.APP_NAME
    assert result == expected


def test_windows_data_dir_appdata():
    env = {"APPDATA": "C:/Users/test/AppData/Roaming"}
    result = settings.get_default_data_dir(
        settings.APP_NAME,
        platform="win32",
        env=env,
        home=Path("C:/Users/test"),
    )
    expected = Path(env["APPDATA"]) / settings.APP_NAME
    assert result == expected


def test_data_dir_override():
    result = settings.get_default_data_dir(
        settings.APP_NAME,
        platform="linux",
        env={"CUSTOS_DATA_DIR": "/srv/custos", "XDG_DATA_HOME": "/tmp/xdg"},
    )
    assert result == Path("/srv/custos")


def test_runtime_paths_inside_data_dir():
    assert settings.DB_PATH.parent == settings.DATA_DIR
    assert settings.FALLBACK_STORE_PATH.parent == settings.DATA_DIR
    assert settings.SYNC_LOG_PATH.parent == settings.LOG_DIR


def test_allow_list_matches_sync_settings():
    assert settings.OFFLINE_SYNC.allowed_tables == settings.ALLOWED_TABLES
    assert "sales" in settings.ALLOWED_TABLES
    assert "intermediate-recipes" in settings.ALLOWED_TABLES
    assert "not_a_real_collection" not in settings.ALLOWED_TABLES


def test_rest_url_appends_rest_path():
    assert settings.BackingStoreSettings(url="https://x.supabase.co/").rest_url == "https://x.supabase.co/rest/v1"
    assert settings.BackingStoreSettings(url="https://x.supabase.co/rest/v1").rest_url == "https://x.supabase.co/rest/v1"
    assert settings.BackingStoreSettings(url="").rest_url == ""


def test_request_timeout_is_shorter_than_entry_timeout():
    from services.backing_store import PostgrestBackingStore

    assert settings.BACKING_STORE.request_timeout_sec < settings.OFFLINE_SYNC.entry_timeout_sec
    assert PostgrestBackingStore(url="").timeout == settings.BACKING_STORE.request_timeout_sec
