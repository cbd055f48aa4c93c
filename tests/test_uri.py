from sipstack.uri import Uri


def test_str_basic():
    uri = Uri(user="alice", host="example.com", port=5060)
    assert str(uri) == "sip:alice@example.com:5060"


def test_str_default_scheme_and_no_port():
    uri = Uri(host="example.com")
    assert str(uri) == "sip:" + "example.com"


def test_str_keeps_explicit_scheme():
    uri = Uri(scheme="tel", user="alice", host="example.com")
    assert str(uri).startswith("tel:")
    assert str(uri).endswith("alice@example.com")


def test_str_password():
    password = "password"
    uri = Uri(user="alice", password=password, host="example.com")
    assert str(uri) == "sip:alice:" + password + "@example.com"


def test_str_password_without_user_omitted():
    password = "password"
    uri = Uri(password=password, host="example.com")
    assert password not in str(uri)


def test_str_params_and_headers():
    uri = Uri(
        user="alice",
        host="example.com",
        uri_params={"transport": "tcp", "lr": ""},
        headers={"subject": "hi", "priority": "urgent"},
    )
    assert str(uri) == "sip:alice@example.com;transport=tcp;lr?subject=hi&priority=urgent"


def test_str_hierarchical_slashes():
    uri = Uri(host="example.com", hierarchical_slashes=True)
    assert str(uri).startswith("sip://")


def test_clone_is_independent():
    uri = Uri(user="alice", host="example.com", uri_params={"transport": "udp"})
    copy = uri.clone()
    assert copy == uri
    copy.uri_params["transport"] = "tcp"
    copy.headers["x"] = "y"
    copy.host = "other.example.com"
    assert uri.uri_params == {"transport": "udp"}
    assert uri.headers == {}
    assert uri.host == "example.com"


def test_is_encrypted():
    assert Uri(scheme="sips", host="example.com").is_encrypted()
    assert not Uri(scheme="sip", host="example.com").is_encrypted()
    assert not Uri(host="example.com").is_encrypted()


def test_endpoint():
    assert Uri(user="bob", host="example.com").endpoint() == "bob@example.com"
    uri = Uri(user="bob", host="example.com", port=5070)
    assert uri.endpoint() == f"bob@example.com:{uri.port}"


def test_addr_excludes_params():
    uri = Uri(
        user="bob", host="example.com", port=5060, uri_params={"transport": "tcp"}
    )
    assert uri.addr() == "sip:" + uri.endpoint()
    assert ";" not in uri.addr()


def test_addr_sips():
    uri = Uri(scheme="sips", user="bob", host="example.com")
    assert uri.addr() == "sips:" + uri.endpoint()


def test_addr_without_user():
    uri = Uri(host="example.com")
    assert uri.addr() == "sip:example.com"
    assert "@" not in uri.addr()


def test_host_port():
    uri = Uri(host="example.com", port=5060)
    assert uri.host_port() == f"{uri.host}:{uri.port}"
    assert Uri(host="example.com").host_port().endswith(":0")