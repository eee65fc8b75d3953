from authz_provision.cli.app import app

app()
